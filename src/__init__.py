"""Fig → PSD 변환 서비스 패키지."""

__version__ = "1.0.0"
