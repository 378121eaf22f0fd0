"""업로드/다운로드 파일명 유틸리티"""

from __future__ import annotations

import re
from urllib.parse import quote

_UNSAFE_HEADER_CHARS = re.compile(r'["\\\r\n]')


def has_suffix(filename: str, suffix: str) -> bool:
    """대소문자 구분 없이 확장자 확인"""
    if not filename or not suffix:
        return False
    return filename.lower().endswith(suffix.lower()) and len(filename) > len(suffix)


def derive_output_name(source_name: str, source_suffix: str = ".fig", target_format: str = "psd") -> str:
    """원본 파일명에서 결과 파일명 생성

    Examples:
        design.fig → design.psd
        Design.FIG → Design.psd
        design → design.psd
    """
    name = (source_name or "").strip() or "converted"
    # 경로 구성요소 제거 (클라이언트가 전체 경로를 보내는 경우)
    name = name.replace("\\", "/").rsplit("/", 1)[-1] or "converted"
    if has_suffix(name, source_suffix):
        name = name[: -len(source_suffix)]
    return f"{name}.{target_format}"


def content_disposition(filename: str) -> str:
    """Content-Disposition 헤더 값 (따옴표/개행 제거, 비ASCII는 RFC 5987 병기)"""
    safe = _UNSAFE_HEADER_CHARS.sub("_", filename)
    ascii_name = safe.encode("ascii", "replace").decode("ascii").replace("?", "_")
    if ascii_name == safe:
        return f'attachment; filename="{safe}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(safe)}"
