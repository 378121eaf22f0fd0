"""결과 파일 최소 검증 - 앞 4바이트 매직 넘버 확인

포맷 내부 구조는 해석하지 않습니다.
"""

from src.core.exceptions import EmptyResultError, ValidationError

PSD_MAGIC = b"8BPS"


def read_header(payload: bytes, length: int = 4) -> bytes:
    return bytes(payload[:length])


def check_signature(payload: bytes, magic: bytes = PSD_MAGIC) -> None:
    """시그니처 검증

    Raises:
        EmptyResultError: payload가 비어 있음
        ValidationError: 앞부분이 magic과 다름 (관측된 헤더 포함)
    """
    if not payload:
        raise EmptyResultError()
    header = read_header(payload, len(magic))
    if header != magic:
        raise ValidationError(expected=magic, observed=header)
