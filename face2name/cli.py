"""
face2name.cli
=============
Command line access to the identity store.

Usage:
    face2name store 42 --name "Ada" --image ada.jpg
    face2name fetch 42 --out ada_face.jpg
    face2name list
    face2name count
    face2name exists 42
    face2name remove 42
    face2name clear
    face2name --config config.yaml --data-dir /tmp/faces list
"""

import argparse
import sys

import cv2
import yaml

from .config import load_config
from .errors import StorageError
from .identity import Identity
from .log import get_logger, setup_logging
from .repository import IdentityRepository

log = get_logger("face2name.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="face2name", description="Face2Name identity store")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--data-dir", default=None,
                        help="Override storage.data_dir from the config")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("store", help="Store or replace an identity")
    p.add_argument("key", type=int)
    p.add_argument("--name", default=None)
    p.add_argument("--image", default=None, help="Face photo to attach")

    p = sub.add_parser("fetch", help="Show one identity")
    p.add_argument("key", type=int)
    p.add_argument("--out", default=None, help="Write the face photo here")

    sub.add_parser("list", help="Show every identity")
    sub.add_parser("count", help="Number of stored identities")

    p = sub.add_parser("exists", help="Exit 0 if the key is stored, 1 if not")
    p.add_argument("key", type=int)

    p = sub.add_parser("remove", help="Delete an identity and its photo")
    p.add_argument("key", type=int)

    sub.add_parser("clear", help="Delete every identity and photo")
    return parser


def _format(identity: Identity) -> str:
    name = identity.name if identity.name is not None else "-"
    photo = "photo" if identity.image is not None else "no-photo"
    return f"{identity.key}\t{name}\t{photo}"


def _run(args, repo: IdentityRepository) -> int:
    if args.command == "store":
        image = None
        if args.image:
            image = cv2.imread(args.image, cv2.IMREAD_COLOR)
            if image is None:
                print(f"error: cannot read image {args.image}", file=sys.stderr)
                return 2
        repo.store(Identity(args.key, args.name, image))
        return 0

    if args.command == "fetch":
        identity = repo.fetch(Identity(args.key))
        if identity is None:
            print(f"not found: {args.key}", file=sys.stderr)
            return 1
        print(_format(identity))
        if args.out and identity.image is not None:
            if not cv2.imwrite(args.out, identity.image):
                print(f"error: cannot write image {args.out}", file=sys.stderr)
                return 2
        return 0

    if args.command == "list":
        for identity in repo.dump_all():
            print(_format(identity))
        return 0

    if args.command == "count":
        print(repo.count())
        return 0

    if args.command == "exists":
        found = repo.exists(Identity(args.key))
        print("yes" if found else "no")
        return 0 if found else 1

    if args.command == "remove":
        repo.remove(Identity(args.key))
        return 0

    if args.command == "clear":
        repo.clear_all()
        return 0

    raise ValueError(f"unknown command: {args.command}")


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    setup_logging(level=cfg["logging"].get("level", "INFO"),
                  json=bool(cfg["logging"].get("json", False)))

    storage = dict(cfg["storage"])
    if args.data_dir:
        storage["data_dir"] = args.data_dir

    try:
        with IdentityRepository(**storage) as repo:
            return _run(args, repo)
    except (StorageError, ValueError) as e:
        log.debug("command failed", command=args.command, exc_info=e)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
