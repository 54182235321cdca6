import argparse
import json
from pathlib import Path

from . import __version__
from .config import get_request_timeout, get_settings, load_env
from .labels import MATCHERS
from .logger import configure_logging, get_logger
from .matching import MODES, find_matches
from .models import ROLES, Offering, Want
from .schema import validate_item, validate_profile
from .storage import ProfileStore, StoreError


def _read_json(path_str: str):
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else get_settings().db_path


def _fail(exc: Exception) -> None:
    get_logger().error("Command failed", error=str(exc), error_type=type(exc).__name__)
    print(f"An error occurred: {exc}")
    raise SystemExit(1)


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    store = ProfileStore.open(db_path)
    store.close()
    print(f"Database ready: {db_path}")


def cmd_validate(args: argparse.Namespace) -> None:
    errors = validate_profile(_read_json(args.input))
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_add_profile(args: argparse.Namespace) -> None:
    data = _read_json(args.input)
    errors = validate_profile(data)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)

    store = ProfileStore.open(_db_path(args))
    try:
        profile = store.create_profile(
            user_id=data["user_id"],
            full_name=data["full_name"],
            age=data["age"],
            role=data["user_type"],
            bio=data.get("bio") or "",
            offerings=[Offering.from_dict(o) for o in data.get("offerings") or []],
            wants=[Want.from_dict(w) for w in data.get("wants") or []],
        )
    except StoreError as e:
        _fail(e)
    finally:
        store.close()
    print(f"Profile: {profile.id}")
    print(f"Offerings: {len(profile.offerings)}  Wants: {len(profile.wants)}")


def _add_item(args: argparse.Namespace, kind: str) -> None:
    if args.free_text and args.description:
        # a free-text item stores its phrase in the description column
        print("--description cannot be combined with --free-text")
        raise SystemExit(2)
    errors = validate_item({"label": args.label, "description": args.description})
    if errors:
        raise SystemExit("; ".join(errors))
    store = ProfileStore.open(_db_path(args))
    try:
        add = store.add_offering if kind == "offering" else store.add_want
        item_id = add(args.user, args.label, description=args.description or "", free_text=args.free_text)
    except StoreError as e:
        _fail(e)
    finally:
        store.close()
    print(f"Added {kind}: {item_id}")


def cmd_add_offering(args: argparse.Namespace) -> None:
    _add_item(args, "offering")


def cmd_add_want(args: argparse.Namespace) -> None:
    _add_item(args, "want")


def _remove_item(args: argparse.Namespace, kind: str) -> None:
    store = ProfileStore.open(_db_path(args))
    try:
        remove = store.remove_offering if kind == "offering" else store.remove_want
        removed = remove(args.id)
    except StoreError as e:
        _fail(e)
    finally:
        store.close()
    print(f"Removed {kind}: {args.id}" if removed else f"No {kind} with id {args.id}")


def cmd_remove_offering(args: argparse.Namespace) -> None:
    _remove_item(args, "offering")


def cmd_remove_want(args: argparse.Namespace) -> None:
    _remove_item(args, "want")


def cmd_list(args: argparse.Namespace) -> None:
    store = ProfileStore.open(_db_path(args))
    try:
        profiles = store.list_profiles(role=args.role)
    except StoreError as e:
        _fail(e)
    finally:
        store.close()
    if not profiles:
        print("No profiles in store.")
        return
    print(f"Found {len(profiles)} profiles:\n")
    for p in profiles:
        print(f"User: {p.user_id}")
        print(f"  Name: {p.full_name} ({p.age}, {p.role})")
        print(f"  Offers: {', '.join(o.label for o in p.offerings) or '-'}")
        print(f"  Wants: {', '.join(w.label for w in p.wants) or '-'}")
        print()


def _open_store(args: argparse.Namespace):
    if args.backend == "supabase":
        from .supabase import SupabaseStore

        try:
            timeout = get_request_timeout()
        except ValueError as e:
            print(f"Configuration error: {e}")
            raise SystemExit(2)
        settings = get_settings()
        return SupabaseStore(settings.supabase_url, settings.supabase_key, timeout=timeout)
    return ProfileStore.open(_db_path(args))


def cmd_match(args: argparse.Namespace) -> None:
    settings = get_settings()
    matcher = MATCHERS["normalized" if args.normalize_labels else "exact"]
    try:
        store = _open_store(args)
    except ValueError as e:
        raise SystemExit(str(e))

    try:
        matches = find_matches(
            store,
            args.user,
            mode=args.mode,
            min_score=args.min_score,
            limit=args.limit,
            matcher=matcher,
            clamp=args.clamp or settings.clamp_scores,
        )
    except StoreError as e:
        _fail(e)
    finally:
        if isinstance(store, ProfileStore):
            store.close()

    if args.json:
        print(json.dumps(
            [{"score": m.score, "profile": m.candidate.to_dict()} for m in matches],
            indent=2,
            ensure_ascii=False,
        ))
        return
    if not matches:
        print("No matches found.")
        return
    for m in matches:
        c = m.candidate
        print(f"{m.score:>4}%  {c.full_name} ({c.age}, {c.role})")
        print(f"       offers: {', '.join(o.label for o in c.offerings) or '-'}")
        print(f"       wants:  {', '.join(w.label for w in c.wants) or '-'}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="genexchange", description="Generation exchange matchmaking CLI")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    def with_db(p):
        p.add_argument("--db", help="Path to SQLite store (default: GENEXCHANGE_DB_PATH or data/genexchange.db)")
        return p

    ini = with_db(subparsers.add_parser("init-db", help="Create the local store"))
    ini.set_defaults(func=cmd_init_db)

    val = subparsers.add_parser("validate", help="Validate a profile JSON")
    val.add_argument("--input", required=True, help="Path to profile JSON")
    val.set_defaults(func=cmd_validate)

    add = with_db(subparsers.add_parser("add-profile", help="Create a profile from JSON (with optional offerings/wants)"))
    add.add_argument("--input", required=True, help="Path to profile JSON")
    add.set_defaults(func=cmd_add_profile)

    for kind, func in (("offering", cmd_add_offering), ("want", cmd_add_want)):
        p = with_db(subparsers.add_parser(f"add-{kind}", help=f"Add an {kind} to a profile" if kind == "offering" else f"Add a {kind} to a profile"))
        p.add_argument("--user", required=True, help="User id owning the profile")
        p.add_argument("--label", required=True, help="Category label, or the phrase itself with --free-text")
        p.add_argument("--description", help="Optional text elaborating the label")
        p.add_argument("--free-text", action="store_true", help="Store the label as a free-text phrase")
        p.set_defaults(func=func)

    for kind, func in (("offering", cmd_remove_offering), ("want", cmd_remove_want)):
        p = with_db(subparsers.add_parser(f"remove-{kind}", help=f"Remove a {kind} by id"))
        p.add_argument("--id", required=True, help=f"Id of the {kind}")
        p.set_defaults(func=func)

    lst = with_db(subparsers.add_parser("list", help="List stored profiles"))
    lst.add_argument("--role", choices=ROLES, help="Only list this role")
    lst.set_defaults(func=cmd_list)

    mat = with_db(subparsers.add_parser("match", help="Rank partners for a user"))
    mat.add_argument("--user", required=True, help="User id of the viewer")
    mat.add_argument("--mode", choices=MODES, help="learn: who can teach me; share: who wants what I offer")
    mat.add_argument("--min-score", type=int, help="Drop matches below this score")
    mat.add_argument("--limit", type=int, help="Maximum number of matches")
    mat.add_argument("--clamp", action="store_true", help="Cap scores at 100")
    mat.add_argument("--normalize-labels", action="store_true", help="Compare labels ignoring case and spacing")
    mat.add_argument("--backend", choices=["sqlite", "supabase"], default="sqlite", help="Profile store to read from")
    mat.add_argument("--json", action="store_true", help="Print matches as JSON")
    mat.set_defaults(func=cmd_match)

    return parser


def main(argv=None):
    # Load .env if present (SUPABASE_URL, SUPABASE_KEY, GENEXCHANGE_*)
    load_env()
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
