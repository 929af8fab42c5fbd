#!/usr/bin/env python3
"""
EDI Workbench Command Line Tool

Validates, diffs, formats and inspects X12 and EDIFACT documents.

Usage:
    python main.py validate order.edi                        # Validate and print issues
    python main.py validate order.edi --rules partner.json   # Add trading partner rules
    python main.py diff old.edi new.edi                      # Line diff
    python main.py diff old.edi new.edi --structural         # Segment-aligned diff
    python main.py format order.edi --unwarp                 # One segment per line
    python main.py info order.edi                            # Envelope summary
"""

import argparse
import logging
import sys
from pathlib import Path

# Try importing from installed package first, fallback to src path
try:
    from cdm import CompareOptions
    from diff_engine import compute_line_diff
    from edi_formatter import unwarp_edi, warp_edi
    from edi_parser import get_document_info
    from rules_engine import load_rule_sets
    from structural_diff import compute_structural_diff
    from validation_service import EDIValidationService, ValidationOptions
except ImportError:
    # Add src to path for imports when not installed
    sys.path.insert(0, str(Path(__file__).parent / "src"))
    from cdm import CompareOptions
    from diff_engine import compute_line_diff
    from edi_formatter import unwarp_edi, warp_edi
    from edi_parser import get_document_info
    from rules_engine import load_rule_sets
    from structural_diff import compute_structural_diff
    from validation_service import EDIValidationService, ValidationOptions

logger = logging.getLogger("edi_workbench")

def read_edi_file(path: str) -> str:
    with open(path, 'r') as f:
        return f.read()

def write_output(json_output: str, output_file: str):
    with open(output_file, 'w') as f:
        f.write(json_output)
    print(f"JSON output saved to: {output_file}")

def run_validate(args) -> int:
    print(f"EDI Validation - {args.input_file}")
    print("=" * 50)

    edi_content = read_edi_file(args.input_file)
    rule_sets = load_rule_sets(args.rules) if args.rules else []
    service = EDIValidationService(schema_base_path=args.schemas)
    result = service.validate(edi_content, ValidationOptions(rule_sets=rule_sets))

    print(f"Segments: {result.metrics.segment_count}  Errors: {result.metrics.error_count}  "
          f"Warnings: {result.metrics.warning_count}  Score: {result.score}/100")
    if result.is_valid:
        print("EDI is valid!")
    else:
        print(f"EDI validation found {result.metrics.error_count} errors:")
    for i, issue in enumerate(result.issues[:args.limit]):
        location = f"line {issue.line}" if issue.line else "document"
        print(f"  {i+1}. [{issue.severity}] {issue.code} ({location}, {issue.source}): {issue.message}")
    if len(result.issues) > args.limit:
        print(f"  ... and {len(result.issues) - args.limit} more issues")

    if args.json:
        write_output(result.model_dump_json(indent=2), args.json)
    return 0 if result.is_valid else 1

def run_diff(args) -> int:
    text_a = read_edi_file(args.left_file)
    text_b = read_edi_file(args.right_file)

    if args.structural:
        options = CompareOptions(
            ignore_control_numbers=args.ignore_control_numbers,
            ignore_timestamps=args.ignore_timestamps,
            ignore_whitespace=args.ignore_whitespace,
        )
        result = compute_structural_diff(text_a, text_b, options)
        print(result.summary)
        print(f"Score: {result.score}/100")
        for aligned in result.aligned_segments:
            if aligned.status == 'MATCH':
                continue
            left = aligned.left.raw if aligned.left else ''
            right = aligned.right.raw if aligned.right else ''
            detail = f" elements {aligned.diffs}" if aligned.diffs else ""
            print(f"  {aligned.status:<10} {left} | {right}{detail}")
    else:
        result = compute_line_diff(text_a, text_b)
        print(f"Changes: {result.change_count}")
        for left, right in zip(result.left_lines, result.right_lines):
            if left.type == 'SAME':
                continue
            marker = {'MODIFIED': '~', 'REMOVED': '-', 'ADDED': '+'}.get(left.type if left.type != 'EMPTY' else right.type)
            print(f"  {marker} {left.content} | {right.content}")

    if args.json:
        write_output(result.model_dump_json(indent=2), args.json)
    return 0

def run_format(args) -> int:
    edi_content = read_edi_file(args.input_file)
    formatted = warp_edi(edi_content) if args.warp else unwarp_edi(edi_content)
    if args.output:
        with open(args.output, 'w') as f:
            f.write(formatted)
        print(f"Formatted output saved to: {args.output}")
    else:
        print(formatted)
    return 0

def run_info(args) -> int:
    info = get_document_info(read_edi_file(args.input_file))
    print(info.model_dump_json(indent=2))
    return 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate, diff and format EDI documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py validate order.edi --json report.json
  python main.py diff old.edi new.edi --structural --ignore-control-numbers
  python main.py format stream.edi --unwarp -o pretty.edi
  python main.py info invoice.edi
        """
    )
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    validate = subparsers.add_parser('validate', help='Validate an EDI document')
    validate.add_argument('input_file', help='Input EDI file')
    validate.add_argument('--rules', help='Trading partner rule sets (JSON)')
    validate.add_argument('--schemas', help='Schema directory (default: bundled schemas)')
    validate.add_argument('--json', help='Write the full report to this JSON file')
    validate.add_argument('--limit', type=int, default=20, help='Number of issues to print (default: 20)')
    validate.set_defaults(func=run_validate)

    diff = subparsers.add_parser('diff', help='Compare two EDI documents')
    diff.add_argument('left_file', help='Original EDI file')
    diff.add_argument('right_file', help='Changed EDI file')
    diff.add_argument('--structural', action='store_true', help='Align by segment id instead of by line')
    diff.add_argument('--ignore-control-numbers', action='store_true', help='Structural diff: skip control numbers')
    diff.add_argument('--ignore-timestamps', action='store_true', help='Structural diff: skip envelope dates and times')
    diff.add_argument('--ignore-whitespace', action='store_true', help='Structural diff: trim element values')
    diff.add_argument('--json', help='Write the diff result to this JSON file')
    diff.set_defaults(func=run_diff)

    fmt = subparsers.add_parser('format', help='Warp or unwarp an EDI document')
    fmt.add_argument('input_file', help='Input EDI file')
    mode = fmt.add_mutually_exclusive_group(required=True)
    mode.add_argument('--warp', action='store_true', help='Join into a single stream')
    mode.add_argument('--unwarp', action='store_true', help='One segment per line')
    fmt.add_argument('-o', '--output', help='Output file (default: stdout)')
    fmt.set_defaults(func=run_format)

    info = subparsers.add_parser('info', help='Show envelope information')
    info.add_argument('input_file', help='Input EDI file')
    info.set_defaults(func=run_info)

    return parser

def main(argv=None):
    """Main entry point with command line argument parsing."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"Error: File not found: {e}")
        return 1
    except Exception as e:
        logger.error(f"Error during EDI processing: {e}", exc_info=True)
        print(f"Error during EDI processing: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
