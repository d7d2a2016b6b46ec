import argparse, sys
from .config import AnnotationSettings
from .flatten import JoinPolicy
from .runner import run_annotation


def _parse_join_policy(value: str) -> str:
    try:
        return JoinPolicy.parse(value).value
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _add_common(r: argparse.ArgumentParser, needs_output: bool = True):
    r.add_argument("--in", dest="inp", required=True, help="Input DOCX file")
    r.add_argument("--detections", required=True, help="Detections JSON ({\"pii\": [{type, value}]})")
    if needs_output:
        r.add_argument("--out", dest="out", required=True, help="Output DOCX file")
    r.add_argument("--report", dest="report", required=not needs_output, default=None)
    r.add_argument(
        "--join-policy",
        type=_parse_join_policy,
        choices=[p.value for p in JoinPolicy],
        default=None,
        help="When to insert a space between runs in the flattened text (default: alnum).",
    )
    r.add_argument("--no-token-boundary", action="store_true",
                   help="Accept hits inside longer words")
    r.add_argument("--debug", action="store_true")
    r.add_argument("--log", default=None, help="Log file path (optional)")


def build():
    p = argparse.ArgumentParser(prog="revmark", description="revmark: restyle detected values in DOCX files")
    sp = p.add_subparsers(dest="cmd", required=True)
    _add_common(sp.add_parser("annotate", help="Restyle detected values (red/italic/underline or brown/underline)"))
    _add_common(sp.add_parser("mask", help="Replace detected values with X characters"))
    _add_common(sp.add_parser("evaluate", help="Report which detections occur in the document"), needs_output=False)
    return p


def settings_from_args(a) -> AnnotationSettings:
    settings = AnnotationSettings.from_env()
    if a.join_policy:
        settings.join_policy = JoinPolicy.parse(a.join_policy)
    if a.no_token_boundary:
        settings.require_token_boundary = False
    return settings


def main(argv=None):
    a = build().parse_args(argv)

    try:
        result = run_annotation(
            input_path=a.inp,
            detections_path=a.detections,
            output_path=getattr(a, "out", None),
            report_path=a.report,
            mode=a.cmd,
            settings=settings_from_args(a),
            debug=a.debug,
            log_path=a.log,
        )
    except KeyboardInterrupt:
        print("Operation cancelled by user", file=sys.stderr)
        sys.exit(130)

    if result['success']:
        print(f"✅ {a.cmd.capitalize()} completed successfully")
        for key in ("styled_count", "masked_count", "matched_count", "not_found_count"):
            if key in result:
                print(f"   {key.replace('_count', '').replace('_', ' ').capitalize()}: {result[key]}")
        print(f"   Processing time: {result['duration']:.2f}s")
        sys.exit(0)
    else:
        print(f"❌ {a.cmd.capitalize()} failed: {result['error']}", file=sys.stderr)
        sys.exit(result['exit_code'])


if __name__ == "__main__":
    main()
