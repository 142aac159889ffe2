"""
Build runner for the Closure Compiler REST client.

Reads a YAML build manifest, compiles each bundle through the Closure
Compiler service, writes the compiled bundles, and produces a JSON summary
and optionally a markdown table.
"""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from tqdm import tqdm

from closure import ClosureCompiler, CompileStatistics
from result import Err, ErrorKind


class ManifestError(ValueError):
    pass


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Replacement:
    """A substitution applied to a bundle's source before it is sent."""
    pattern: str
    replacement: str
    regex: bool = False
    count: int = 1

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Replacement":
        if "pattern" not in d:
            raise ManifestError(f"Replacement is missing 'pattern': {d}")
        regex = d.get("regex", False)
        if regex:
            try:
                re.compile(d["pattern"])
            except re.error as e:
                raise ManifestError(f"Invalid regex {d['pattern']!r}: {e}") from e
        return cls(
            pattern=d["pattern"],
            replacement=d.get("replacement", ""),
            regex=regex,
            count=d.get("count", 1),
        )


@dataclass
class BundleConfig:
    """
    A single output bundle.

    Files are resolved relative to the manifest directory, as is output.
    Bundle options are merged over the manifest-level defaults.
    """
    name: str
    files: List[str] = field(default_factory=list)
    code: str = ""
    header: str = ""
    options: Dict[str, Any] = field(default_factory=dict)
    replace: List[Replacement] = field(default_factory=list)
    output: Optional[str] = None

    @classmethod
    def from_dict(
        cls, d: Dict[str, Any], defaults: Dict[str, Any], base_dir: str
    ) -> "BundleConfig":
        if "name" not in d:
            raise ManifestError(f"Bundle is missing 'name': {d}")
        output = d.get("output")
        return cls(
            name=d["name"],
            files=[os.path.join(base_dir, f) for f in d.get("files", [])],
            code=d.get("code", ""),
            header=d.get("header", ""),
            options={**defaults, **d.get("options", {})},
            replace=[Replacement.from_dict(r) for r in d.get("replace", [])],
            output=os.path.join(base_dir, output) if output else None,
        )

    def make_compiler(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        on_error=None,
    ) -> ClosureCompiler:
        """Build a fresh ClosureCompiler for this bundle. Raises OSError on unreadable files."""
        compiler = (
            ClosureCompiler(url=url, timeout=timeout, on_error=on_error)
            .set_options(self.options)
            .set_header(self.header)
            .append_files(*self.files)
            .append_code(self.code)
        )
        for r in self.replace:
            pattern = re.compile(r.pattern) if r.regex else r.pattern
            compiler.replace_code(pattern, r.replacement, r.count)
        return compiler


@dataclass
class BundleResult:
    """Result of compiling a single bundle."""
    name: str
    output: Optional[str]
    passed: bool
    error_kind: Optional[str] = None
    error: Optional[str] = None
    statistics: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "output": self.output,
            "passed": self.passed,
            "error_kind": self.error_kind,
            "error": self.error,
            "statistics": self.statistics,
        }


# =============================================================================
# Manifest Loading
# =============================================================================

def load_manifest(manifest_file: str) -> Dict[str, Any]:
    """Load YAML build manifest."""
    with open(manifest_file, "r", encoding="utf-8") as f:
        manifest = yaml.safe_load(f)
    if not isinstance(manifest, dict):
        raise ManifestError(f"{manifest_file}: expected a mapping at top level")
    return manifest


def parse_bundles(manifest: Dict[str, Any], base_dir: str) -> List[BundleConfig]:
    """Parse bundle configurations, applying manifest-level default options."""
    defaults = manifest.get("options") or {}
    bundles = [BundleConfig.from_dict(b, defaults, base_dir) for b in manifest.get("bundles") or []]
    names = [b.name for b in bundles]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ManifestError(f"Duplicate bundle names: {', '.join(duplicates)}")
    return bundles


# =============================================================================
# Compilation
# =============================================================================

def run_bundle(
    bundle: BundleConfig,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
    results_dir: Optional[str] = None,
    debug: bool = False,
) -> BundleResult:
    """Compile one bundle and wait for its result."""
    errors: List[Err] = []
    try:
        compiler = bundle.make_compiler(url=url, timeout=timeout, on_error=errors.append)
    except OSError as e:
        return BundleResult(bundle.name, bundle.output, False, str(ErrorKind.IO), str(e))

    # Without an output file, compiled code goes to the console above the bar.
    callback = None if bundle.output else tqdm.write
    if bundle.output:
        os.makedirs(os.path.dirname(bundle.output) or ".", exist_ok=True)
    result = compiler.submit(callback=callback, destination_file=bundle.output).result()

    if result.is_err():
        return BundleResult(bundle.name, bundle.output, False, str(result.kind), result.error)

    response = result.value
    if debug and results_dir:
        _write_json(os.path.join(results_dir, f"{bundle.name}.response.json"), response)
    stats = response.get("statistics")
    return BundleResult(
        bundle.name,
        bundle.output,
        True,
        statistics=CompileStatistics.from_dict(stats).to_dict() if stats else None,
    )


def _write_json(path: str, data: Any) -> None:
    """Write JSON data to a file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


# =============================================================================
# Markdown Table Generation
# =============================================================================

def status_icon(result: BundleResult) -> str:
    """✅ compiled, ❌ failed (with the error kind)."""
    if result.passed:
        return "✅"
    return f"❌ {result.error_kind}"


def build_markdown_table(results: List[BundleResult], output_path: str) -> None:
    """
    Generate a markdown table summarizing bundle results.

    Size columns are empty unless the manifest requested statistics in
    output_info.
    """
    lines = [
        "| Bundle | Status | Original | Compressed | GZipped | Reduced |",
        "|---|---|---|---|---|---|",
    ]
    for r in results:
        s = r.statistics
        if s:
            sizes = [
                f"{s['original_kb']} KB",
                f"{s['compressed_kb']} KB",
                f"{s['compressed_gzip_kb']} KB",
                f"{s['reduction']:.1f}%",
            ]
        else:
            sizes = ["", "", "", ""]
        lines.append("| " + " | ".join([r.name, status_icon(r), *sizes]) + " |")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


# =============================================================================
# Main
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compile JavaScript bundles via the Closure Compiler service."
    )
    parser.add_argument("manifest_file", help="Path to YAML build manifest")
    parser.add_argument(
        "--results-dir", "-o", default="results",
        help="Directory for summary files (default: results)"
    )
    parser.add_argument(
        "--debug", "-d", action="store_true",
        help="Save full API responses for debugging"
    )
    parser.add_argument(
        "--bundle", "-b", action="append", metavar="NAME",
        help="Only compile this bundle (can be repeated)"
    )
    parser.add_argument(
        "--table", "-T", action="store_true",
        help="Generate markdown summary table"
    )
    parser.add_argument(
        "--table-file", default=None,
        help="Path for markdown table (default: results/table.md)"
    )
    parser.add_argument(
        "--delay", type=float, default=0.5,
        help="Delay between API requests in seconds (default: 0.5)"
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Per-request timeout in seconds (default: none)"
    )

    args = parser.parse_args(argv)

    try:
        manifest = load_manifest(args.manifest_file)
        bundles = parse_bundles(manifest, os.path.dirname(os.path.abspath(args.manifest_file)))
    except (OSError, yaml.YAMLError, ManifestError) as e:
        print(f"Error loading manifest: {e}", file=sys.stderr)
        return 1

    if args.bundle:
        unknown = [n for n in args.bundle if n not in {b.name for b in bundles}]
        if unknown:
            print(f"Error: No bundles matching: {unknown}", file=sys.stderr)
            return 1
        bundles = [b for b in bundles if b.name in args.bundle]

    if not bundles:
        print("Error: No bundles to compile.", file=sys.stderr)
        return 1

    os.makedirs(args.results_dir, exist_ok=True)

    results: List[BundleResult] = []
    with tqdm(total=len(bundles), desc="Compiling", unit="bundle") as pbar:
        for i, bundle in enumerate(bundles):
            if i and args.delay:
                time.sleep(args.delay)
            result = run_bundle(
                bundle,
                url=manifest.get("endpoint"),
                timeout=args.timeout,
                results_dir=args.results_dir,
                debug=args.debug,
            )
            results.append(result)
            if not result.passed:
                tqdm.write(f"✗ {bundle.name}: {result.error_kind}: {result.error}")
            pbar.update(1)

    _write_json(os.path.join(args.results_dir, "summary.json"), [r.to_dict() for r in results])

    passed = sum(r.passed for r in results)
    print(f"\nResults: {passed}/{len(results)} bundles compiled")

    if args.table:
        table_path = args.table_file or os.path.join(args.results_dir, "table.md")
        build_markdown_table(results, table_path)
        print(f"Table written to: {table_path}")

    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
