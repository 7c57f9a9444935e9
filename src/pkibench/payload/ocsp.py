from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from pkibench.errors import PayloadError

logger = logging.getLogger(__name__)

REQUEST_FILENAME = "ocsp.req.der"


def build_ocsp_request(
    cert_path: str | Path,
    issuer_path: str | Path,
    ocsp_url: str,
    openssl: str = "openssl",
) -> bytes:
    cert = Path(cert_path)
    issuer = Path(issuer_path)
    if not cert.is_file():
        msg = f"Cert file not found: {cert}"
        raise PayloadError(msg)
    if not issuer.is_file():
        msg = f"Issuer file not found: {issuer}"
        raise PayloadError(msg)

    workdir = Path(tempfile.mkdtemp(prefix="pkibench-"))
    req_out = workdir / REQUEST_FILENAME
    try:
        _run_encoder(openssl, cert, issuer, ocsp_url, req_out)
        try:
            payload = req_out.read_bytes()
        except OSError as exc:
            msg = f"OCSP request was not written to {req_out}: {exc}"
            raise PayloadError(msg) from exc
    finally:
        _cleanup(workdir)

    if not payload:
        msg = "openssl produced an empty OCSP request"
        raise PayloadError(msg)
    logger.info("Built OCSP request for %s (%d bytes)", cert, len(payload))
    return payload


def _run_encoder(openssl: str, cert: Path, issuer: Path, ocsp_url: str, req_out: Path) -> None:
    cmd = [
        openssl,
        "ocsp",
        "-issuer",
        str(issuer),
        "-cert",
        str(cert),
        "-url",
        ocsp_url,
        "-reqout",
        str(req_out),
        "-noverify",
    ]
    # With -url and no -respin, openssl also posts the request to the responder
    # once; an unreachable responder fails setup.
    logger.debug("Running %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        msg = f"Could not run {openssl}: {exc}"
        raise PayloadError(msg) from exc
    if result.returncode != 0:
        msg = (
            "Failed to generate OCSP request with openssl.\n"
            f"stdout: {result.stdout}\n"
            f"stderr: {result.stderr}"
        )
        raise PayloadError(msg)


def _cleanup(workdir: Path) -> None:
    try:
        shutil.rmtree(workdir)
    except OSError as exc:
        logger.warning("Could not remove temporary OCSP request dir %s: %s", workdir, exc)
