"""Fill in and submit a classroom checklist from the command line.

Usage (PowerShell):
  python .\\scripts\\submit_checklist.py --name "Ana Souza" --signature assinatura.png `
      --set 5=0 --justification "Cabo HDMI emprestado para outra sala"

By default the receipt is sent to the Checklist API at STORAGE_SERVER_URL.
Use --storage-dir to write directly into a local storage directory instead,
--preview to only render the receipt, and --history to list stored receipts.

Copyright (c) Bryn Gwalad 2025
"""

import argparse
import base64
import os
import sys
from pathlib import Path

# Ensure project root is on sys.path so `from api import models` works when
# running this script directly.
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv()

from utils.checklist import ValidationFailure
from utils.controller import FormController
from utils.storage import FileSystemStorage
from utils.storage_client import STORAGE_SERVER_URL, HttpStorage


def _parse_assignment(value: str):
    item_id, sep, quantity = value.partition("=")
    if not sep or not item_id:
        raise argparse.ArgumentTypeError(f"expected ID=QTY, got {value!r}")
    return item_id, quantity


def _read_signature(path: str) -> str:
    data = Path(path).read_bytes()
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="EduCheck classroom equipment checklist")
    p.add_argument("--name", default="", help="Teacher name")
    p.add_argument("--start", default="", help="Usage start time (e.g. 07:30)")
    p.add_argument("--end", default="", help="Usage end time (e.g. 09:10)")
    p.add_argument("--set", dest="quantities", action="append", default=[], type=_parse_assignment,
                   metavar="ID=QTY", help="Quantity found for an item; repeatable")
    p.add_argument("--justification", default="", help="Required when a quantity differs from the baseline")
    p.add_argument("--signature", help="PNG file with the teacher's signature")
    p.add_argument("--server", default=STORAGE_SERVER_URL, help="Checklist API base URL")
    p.add_argument("--storage-dir", help="Write directly into this storage directory instead of the API")
    p.add_argument("--preview", help="Render the receipt to this path and stop without submitting")
    p.add_argument("--download-dir", help="Also keep a local copy of the submitted receipt here")
    p.add_argument("--history", action="store_true", help="List stored receipts and exit")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.storage_dir:
        return run(args, FileSystemStorage(args.storage_dir))
    with HttpStorage(args.server) as storage:
        return run(args, storage)


def run(args, storage) -> int:
    controller = FormController(storage, download_dir=args.download_dir)

    if args.history:
        controller.show_history()
        if controller.notice is not None:
            print(controller.notice.message, file=sys.stderr)
            return 1
        if not controller.history:
            print("Nenhum registro encontrado.")
        for entry in sorted(controller.history, key=lambda e: e.date, reverse=True):
            print(f"{entry.date:%d/%m/%Y %H:%M:%S}  {entry.name}")
        return 0

    controller.set_teacher_name(args.name)
    controller.set_usage_period(args.start, args.end)
    for item_id, quantity in args.quantities:
        try:
            controller.set_quantity(item_id, quantity)
        except KeyError:
            print(f"Unknown item id: {item_id}", file=sys.stderr)
            return 2
    controller.set_justification(args.justification)
    if args.signature:
        controller.set_signature(_read_signature(args.signature))

    try:
        receipt = controller.preview()
    except ValidationFailure as exc:
        print(str(exc), file=sys.stderr)
        return 1

    if args.preview:
        outdir = os.path.dirname(args.preview)
        if outdir:
            os.makedirs(outdir, exist_ok=True)
        Path(args.preview).write_bytes(receipt.pdf_bytes)
        print(f"Wrote preview to {args.preview}")
        return 0

    ok = controller.submit()
    print(controller.notice.message if controller.notice else "", file=sys.stdout if ok else sys.stderr)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
