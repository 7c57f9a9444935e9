from __future__ import annotations

from pkibench.payload.ocsp import build_ocsp_request

__all__ = ["build_ocsp_request"]
