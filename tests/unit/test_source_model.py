"""Tests for the declaration index used for hierarchy fan-out."""

import os
from pathlib import Path

from transbuild.core.source_model import DeclarationIndex, SourceModel, scan_declarations


class TestScanDeclarations:
    def test_package_imports_and_supertypes(self) -> None:
        decls = scan_declarations(
            """
package app.model;

import java.util.List;
import app.base.Entity;
import static app.Util.helper;

/* class Commented extends Nope {} */
public class Order extends Entity<Long> implements Comparable<Order>, Serializable {
    String s = "class Fake extends Nope {";
}
"""
        )

        assert decls.package == "app.model"
        assert decls.imports == {"List": "java.util.List", "Entity": "app.base.Entity"}
        assert decls.types == {"app.model.Order": ["Entity", "Comparable", "Serializable"]}

    def test_interfaces_enums_and_records(self) -> None:
        decls = scan_declarations(
            """
interface Shape extends Named, Sized {}
enum Color implements Named { RED, GREEN }
record Point(int x, int y) implements Shape {}
"""
        )

        assert decls.package == ""
        assert decls.types == {
            "Shape": ["Named", "Sized"],
            "Color": ["Named"],
            "Point": ["Shape"],
        }


def _write(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path.resolve()


class TestDeclarationIndex:
    def test_satisfies_source_model_protocol(self) -> None:
        assert isinstance(DeclarationIndex.of([]), SourceModel)

    def test_hierarchy_closure_goes_up_and_down(self, tmp_path: Path) -> None:
        base = _write(tmp_path, "p/Base.java", "package p;\npublic class Base {}\n")
        mid = _write(tmp_path, "p/Mid.java", "package p;\npublic class Mid extends Base {}\n")
        leaf = _write(tmp_path, "q/Leaf.java", "package q;\nimport p.Mid;\nclass Leaf extends Mid {}\n")
        _write(tmp_path, "p/Other.java", "package p;\nclass Other {}\n")

        index = DeclarationIndex.of(sorted(tmp_path.rglob("*.java")))

        assert index.types_declared_in(mid) == {"p.Mid"}
        assert index.hierarchy_closure("p.Mid") == {"p.Base", "p.Mid", "q.Leaf"}
        assert index.hierarchy_closure("p.Other") == {"p.Other"}
        assert index.file_declaring("q.Leaf") == leaf
        assert index.file_declaring("p.Base") == base
        assert index.file_declaring("java.lang.Object") is None

    def test_closure_does_not_include_siblings(self, tmp_path: Path) -> None:
        _write(tmp_path, "Base.java", "class Base {}\n")
        _write(tmp_path, "Left.java", "class Left extends Base {}\n")
        _write(tmp_path, "Right.java", "class Right extends Base {}\n")

        index = DeclarationIndex.of(tmp_path.glob("*.java"))

        assert index.hierarchy_closure("Left") == {"Left", "Base"}
        assert index.hierarchy_closure("Base") == {"Base", "Left", "Right"}

    def test_refresh_rescans_modified_files(self, tmp_path: Path) -> None:
        a = _write(tmp_path, "A.java", "class A {}\n")
        _write(tmp_path, "B.java", "class B {}\n")
        index = DeclarationIndex.of([a, tmp_path / "B.java"])
        assert index.hierarchy_closure("A") == {"A"}

        a.write_text("class A extends B { int more; }\n")
        stat = a.stat()
        os.utime(a, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000))
        assert index.hierarchy_closure("A") == {"A"}

        index.refresh()

        assert index.hierarchy_closure("A") == {"A", "B"}

    def test_unknown_file_declares_nothing(self, tmp_path: Path) -> None:
        index = DeclarationIndex.of([])
        assert index.types_declared_in(tmp_path / "Missing.java") == set()
