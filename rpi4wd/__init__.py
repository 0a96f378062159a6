"""
rpi4wd 패키지 루트 모듈.

라즈베리파이 4WD 차량의 모터/서보/센서/HID를 GPIO 위에서 안전하게 제어하는 컴포넌트를 노출한다.
"""

__all__ = ["control", "errors", "hardware", "runtime", "utils"]
