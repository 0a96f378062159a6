"""실행 스크립트용 루프."""
