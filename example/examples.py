"""
Example usage of the Closure Compiler REST client.

This file demonstrates the various features of the ClosureCompiler class:
1. Compiling inline code to a callback
2. Concatenating files and writing a bundle with a header
3. Inspecting the raw JSON response (warnings, errors, statistics)
4. Rewriting source before it is sent
5. Handling errors without exceptions
"""

import re
import sys
import tempfile
from pathlib import Path

# Add parent directory to path so we can import closure
sys.path.insert(0, str(Path(__file__).parent.parent))

from closure import ClosureCompiler


def example_compile_callback():
    """Example 1: Compile a snippet and receive the code in a callback"""
    print("=" * 60)
    print("Example 1: Compile to a Callback")
    print("=" * 60)

    future = (
        ClosureCompiler()
        .set_option("compilation_level", "SIMPLE_OPTIMIZATIONS")
        .append_code("function hello(name) { alert('Hello, ' + name); }\n")
        .append_code("hello('world');\n")
        .compile(lambda code: print("Compiled:", code))
    )
    # The request runs in the background; wait so the output lands here.
    future.result()
    print()


def example_bundle_to_file():
    """Example 2: Concatenate files and write a bundle with a license header"""
    print("=" * 60)
    print("Example 2: Files to a Bundle")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        src = Path(tmp)
        (src / "foo.js").write_text("var foo = function() { return 1; };\n")
        (src / "bar.js").write_text("var bar = foo() + 1;\n")

        result = (
            ClosureCompiler()
            .set_header("/* (c) Example Corp */\n")
            .append_files(src / "foo.js", src / "bar.js")
            .write_output_to_file(src / "bundle.min.js")
            .result()
        )
        if result.is_ok():
            print((src / "bundle.min.js").read_text())
    print()


def example_raw_response():
    """Example 3: Statistics, warnings and errors from the raw response"""
    print("=" * 60)
    print("Example 3: Raw Response")
    print("=" * 60)

    def show(response):
        for key in ("warnings", "errors", "statistics"):
            print(f"{key}: {response.get(key, '<none>')}")

    (
        ClosureCompiler()
        .set_options({
            "compilation_level": "ADVANCED_OPTIMIZATIONS",
            "warning_level": "VERBOSE",
            "output_info": ["compiled_code", "warnings", "errors", "statistics"],
        })
        .append_code("var unused = 1; function f(a) { return a + undefinedVar; }")
        .compile_delivering_raw_response(show)
        .result()
    )
    print()


def example_replace():
    """Example 4: Strip debug logging and flip a flag before compiling"""
    print("=" * 60)
    print("Example 4: Source Rewriting")
    print("=" * 60)

    (
        ClosureCompiler()
        .append_code("var DEBUG = true;\nconsole.log('a');\nconsole.log('b');\nrun(DEBUG);\n")
        .replace_code("DEBUG = true", "DEBUG = false")
        .replace_code(re.compile(r"console\.log\(.*?\);\n"), "", count=0)
        .compile(print)
        .result()
    )
    print()


def example_errors():
    """Example 5: Errors come back as values"""
    print("=" * 60)
    print("Example 5: Error Handling")
    print("=" * 60)

    result = (
        ClosureCompiler(url="http://localhost:9/compile", timeout=5, on_error=lambda err: None)
        .append_code("var x = 1;")
        .compile(print)
        .result()
    )
    result.match(
        lambda response: print("Unexpected success"),
        lambda err: print(f"Failed as expected: {err.kind} ({err.error})"),
    )
    print()


def main():
    example_compile_callback()
    example_bundle_to_file()
    example_raw_response()
    example_replace()
    example_errors()


if __name__ == "__main__":
    main()
