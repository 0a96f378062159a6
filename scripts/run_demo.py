"""하드웨어 점검 데모 실행 스크립트 (실기 없으면 RPI4WD_MOCK=1)."""

from pathlib import Path
import sys

# 스크립트가 어디서 실행되든 프로젝트 루트(=rpi4wd 패키지 위치)를 import path에 포함
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rpi4wd.runtime.demo import main


if __name__ == "__main__":
    sys.exit(main())
