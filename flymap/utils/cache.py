"""Streamlit 캐싱 유틸리티.

- 리전 디렉터리: 프로세스당 한 번 로드 (커스텀 리전 URL 조회 포함)
"""

from __future__ import annotations

import logging

from flymap.data.regions import RegionDirectory, build_default_directory

logger = logging.getLogger(__name__)


def get_region_directory() -> RegionDirectory:
    """기본 리전 디렉터리를 캐시하여 반환."""

    try:
        import streamlit as st

        @st.cache_resource(show_spinner=False)
        def _load() -> RegionDirectory:
            return build_default_directory()

        return _load()
    except Exception:
        # Streamlit 런타임 외부(테스트/CLI)에서는 캐시 없이 실행
        logger.debug("streamlit 캐시 사용 불가, 직접 로드")
        return build_default_directory()
