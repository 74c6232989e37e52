"""
Echo bot on top of wabridge.

The protocol connection is not part of wabridge; point `--factory` at a
`module:attribute` that implements `wabridge.ConnectionFactory`.

    python examples/echo_bot.py --factory mybot.connection:make_connection
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import importlib
import logging
from pathlib import Path

from wabridge import ButtonsOptions, NormalizedMessage, ProviderConfig, WhatsAppProvider


def _load_factory(spec: str):
    module_name, _, attr = spec.partition(":")
    if not attr:
        raise SystemExit(f"--factory must look like module:attribute, got {spec!r}")
    return getattr(importlib.import_module(module_name), attr)


async def main() -> None:
    ap = argparse.ArgumentParser(prog="echo_bot.py")
    ap.add_argument("--factory", required=True, help="connection factory as module:attribute")
    ap.add_argument("--session", default="./baileys_sessions", help="session folder")
    ap.add_argument("--no-qr-file", action="store_true", help="don't write QR to <session>/qr.svg")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    session_dir = Path(args.session).expanduser().resolve()
    provider = WhatsAppProvider.from_session_folder(
        _load_factory(args.factory), session_dir, config=ProviderConfig()
    )

    def on_qr(qr: str) -> None:
        print("\nScan this QR in WhatsApp -> Settings -> Linked devices -> Link a device\n")
        if not args.no_qr_file:
            with contextlib.suppress(ImportError):
                import qrcode  # optional extra
                from qrcode.image.svg import SvgImage

                session_dir.mkdir(parents=True, exist_ok=True)
                svg_path = session_dir / "qr.svg"
                svg_path.write_bytes(qrcode.make(qr, image_factory=SvgImage).to_string())
                print(f"wrote {svg_path}")
        with contextlib.suppress(ImportError):
            import qrcode

            q = qrcode.QRCode(border=1)
            q.add_data(qr)
            q.make(fit=True)
            q.print_ascii(invert=True)
            return
        print("QR string:", qr)

    async def on_message(msg: NormalizedMessage) -> None:
        print(f"[{msg.type}] {msg.from_jid}: {msg.body}")
        if msg.type != "text":
            return
        if msg.body.strip().lower() == "menu":
            await provider.send_message(msg.from_jid, "What next?", ButtonsOptions(["Help", "Quit"]))
            return
        await provider.send_text(msg.from_jid, msg.body)

    provider.on("qr", on_qr)
    provider.on("ready", lambda _ok: print("ready"))
    provider.on("auth_failure", lambda err: print("auth failure:", err))
    provider.on("message", on_message)

    await provider.start()
    try:
        await asyncio.Event().wait()
    finally:
        await provider.close()


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
