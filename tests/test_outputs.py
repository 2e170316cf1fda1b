import json
import logging
from pathlib import Path

import pytest

from ffi_surface_generator import generate_ffi
from ffi_surface_generator.assembler import generate_ffi_headers
from ffi_surface_generator.emitters.report_emitter import ReportConfig, SurfaceReportEmitter
from ffi_surface_generator.manifest import MANIFEST_FILE_NAME, build_manifest, emit_manifest
from ffi_surface_generator.models import GenerationContext
from ffi_surface_generator.parsing.database_loader import type_database_from_dict
from ffi_surface_generator.utils import TemplateRenderer


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    package = logging.getLogger("ffi_surface_generator")
    saved = (list(root.handlers), root.level, package.level, package.propagate)
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    package.setLevel(saved[2])
    package.propagate = saved[3]


@pytest.fixture
def headers(config, widget_document: dict):
    return generate_ffi_headers(type_database_from_dict(widget_document), config)


@pytest.fixture
def ctx(tmp_path: Path) -> GenerationContext:
    return GenerationContext(output_dir=tmp_path / "out", templates_dir=None, library_name="mylib")


def _run(write_database, document: dict, tmp_path: Path, *extra: str) -> int:
    argv = [
        "--database", str(write_database(document)),
        "--library-name", "mylib",
        "--output-dir", str(tmp_path / "out"),
        *extra,
    ]
    return generate_ffi.main(argv)


# --------------------------
# Report
# --------------------------

def test_report_lists_every_symbol(ctx: GenerationContext, headers) -> None:
    text = SurfaceReportEmitter(ctx, TemplateRenderer(None)).render(headers)

    assert text.startswith("# FFI surface of mylib")
    for h in headers:
        assert f"## {h.include_file_base_name}" in text
        for m in h.methods:
            assert f"`{m.c_name}`" in text
    assert "### Slot wrappers" in text
    assert "`1custom_slot(int)`" in text


def test_report_written_to_output_dir(ctx: GenerationContext, headers) -> None:
    SurfaceReportEmitter(ctx, TemplateRenderer(None)).emit(headers)

    assert (ctx.output_dir / "ffi_surface.md").is_file()


def test_user_templates_override_package_templates(ctx: GenerationContext, headers, tmp_path: Path) -> None:
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "ffi_surface.md.j2").write_text("{{ library_name }}: {{ method_count }}\n", encoding="utf-8")

    text = SurfaceReportEmitter(ctx, TemplateRenderer(templates)).render(headers)

    assert text.strip() == f"mylib: {sum(len(h.methods) for h in headers)}"


def test_missing_template_raises(ctx: GenerationContext, headers) -> None:
    emitter = SurfaceReportEmitter(ctx, TemplateRenderer(None), ReportConfig(report_template="missing.j2"))

    with pytest.raises(RuntimeError, match="Template not found"):
        emitter.emit(headers)


def test_md_code_filter_escapes_table_separators() -> None:
    renderer = TemplateRenderer(None)

    assert renderer.env.filters["md_code"]("operator|") == "`operator\\|`"


# --------------------------
# Manifest
# --------------------------

def test_manifest_contents(ctx: GenerationContext, headers) -> None:
    manifest = build_manifest(ctx, headers)

    assert manifest["generator"]["name"] == "ffi-surface-generator"
    assert manifest["library_name"] == "mylib"
    assert manifest["header_count"] == len(headers)
    assert [h["include_file_base_name"] for h in manifest["headers"]] == [h.include_file_base_name for h in headers]


def test_emit_manifest_writes_json(ctx: GenerationContext, headers) -> None:
    emit_manifest(ctx, headers)

    data = json.loads((ctx.output_dir / MANIFEST_FILE_NAME).read_text(encoding="utf-8"))
    assert data["method_count"] == sum(len(h.methods) for h in headers)


def test_dry_run_writes_nothing(ctx: GenerationContext, headers) -> None:
    ctx.dry_run = True

    emit_manifest(ctx, headers)

    assert not (ctx.output_dir / MANIFEST_FILE_NAME).exists()


# --------------------------
# CLI
# --------------------------

def test_cli_generates_report_and_manifest(write_database, widget_document: dict, tmp_path: Path) -> None:
    assert _run(write_database, widget_document, tmp_path) == 0

    out = tmp_path / "out"
    manifest = json.loads((out / MANIFEST_FILE_NAME).read_text(encoding="utf-8"))
    units = [h["include_file_base_name"] for h in manifest["headers"]]
    assert units == ["globals", "widget", "slots"]
    widget = manifest["headers"][1]
    assert [m["c_name"] for m in widget["methods"]] == [
        "mylib_Widget_new",
        "mylib_Widget_resize_double",
        "mylib_Widget_resize_int",
    ]
    assert (out / "ffi_surface.md").is_file()


def test_cli_exclusions(write_database, widget_document: dict, tmp_path: Path) -> None:
    code = _run(write_database, widget_document, tmp_path, "--exclude-regex", "resize", "--exclude-class", "Widget", "--no-report")

    assert code == 0
    manifest = json.loads((tmp_path / "out" / MANIFEST_FILE_NAME).read_text(encoding="utf-8"))
    names = [m["c_name"] for h in manifest["headers"] for m in h["methods"]]
    assert not any("Widget_" in n for n in names)
    assert not (tmp_path / "out" / "ffi_surface.md").exists()


def test_cli_dry_run(write_database, widget_document: dict, tmp_path: Path) -> None:
    assert _run(write_database, widget_document, tmp_path, "--dry-run") == 0

    assert not (tmp_path / "out" / MANIFEST_FILE_NAME).exists()


def test_cli_missing_database(tmp_path: Path) -> None:
    code = generate_ffi.main(["--database", str(tmp_path / "missing.json"), "--library-name", "mylib"])

    assert code == 2


def test_cli_empty_output_fails(write_database, tmp_path: Path) -> None:
    assert _run(write_database, {"classes": {}, "methods": []}, tmp_path) == 3


def test_cli_invalid_library_name_fails(write_database, widget_document: dict, tmp_path: Path) -> None:
    code = generate_ffi.main([
        "--database", str(write_database(widget_document)),
        "--library-name", "my-lib",
        "--output-dir", str(tmp_path / "out"),
    ])

    assert code == 3


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        ([], logging.INFO),
        (["-v"], logging.DEBUG),
        (["-q"], logging.WARNING),
        (["-qq"], logging.ERROR),
        (["-v", "--log-level", "error"], logging.ERROR),
    ],
)
def test_log_level_resolution(argv: list, expected: int) -> None:
    ns = generate_ffi.parse_args(["--database", "db.json", "--library-name", "mylib", *argv])

    assert generate_ffi._resolve_log_level(ns) == expected


def test_cli_malformed_database_exits_with_format_error(tmp_path: Path) -> None:
    path = tmp_path / "db.json"
    path.write_bytes(b"\xff\xfe{")

    code = generate_ffi.main(["--database", str(path), "--library-name", "mylib", "--output-dir", str(tmp_path / "out")])

    assert code == 2
