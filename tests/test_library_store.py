"""Tests for the library store (shared symbol container and per-component files)."""

import os
import threading
import pytest
from kiutils.footprint import Footprint
from kiutils.symbol import SymbolLib

from errors import DuplicateComponent, LibraryError
from library_store import LibraryStore, container_lock, scan_entries

HEADER = "(kicad_symbol_lib (version 20211014) (generator lcscbridge)\n"
ENTRY_A = '  (symbol "A_C1" (in_bom yes))\n'
ENTRY_B = '  (symbol "B_C2" (in_bom yes))\n'
ENTRY_C = '  (symbol "C_C12" (in_bom yes))\n'


def _container(path, *entries):
    path.write_text(HEADER + "".join(entries) + ")\n")
    return str(path)


def _read(path):
    with open(path, "r", newline="") as f:
        return f.read()


class TestScanEntries:
    def test_children_of_root(self):
        scan = scan_entries(HEADER + ENTRY_A + ENTRY_B + ")\n")
        assert scan.root_tag == "kicad_symbol_lib"
        assert [(e.tag, e.name) for e in scan.entries] == [
            ("version", "20211014"), ("generator", "lcscbridge"),
            ("symbol", "A_C1"), ("symbol", "B_C2"),
        ]

    def test_parens_inside_strings_ignored(self):
        text = HEADER + '  (symbol "A(1)_C1" (property "Value" "x)y\\"(" ))\n)\n'
        scan = scan_entries(text)
        symbols = [e for e in scan.entries if e.tag == "symbol"]
        assert len(symbols) == 1
        assert symbols[0].name == "A(1)_C1"
        assert text[symbols[0].end - 1] == ")"
        assert text[symbols[0].end] == "\n"

    def test_unbalanced(self):
        with pytest.raises(LibraryError):
            scan_entries(HEADER + '  (symbol "A_C1"\n)\n')

    def test_unterminated_string(self):
        with pytest.raises(LibraryError):
            scan_entries('(kicad_symbol_lib (symbol "A_C1))')

    def test_empty(self):
        with pytest.raises(LibraryError):
            scan_entries("")


class TestAddOrUpdate:
    def test_creates_container(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        store.add_or_update(store.symbol_lib_path, "A_C1", ENTRY_A)
        text = _read(store.symbol_lib_path)
        assert text.startswith("(kicad_symbol_lib")
        assert store.symbol_names() == ["A_C1"]

    def test_insert_before_root_closer(self, tmp_path):
        path = _container(tmp_path / "lib.kicad_sym", ENTRY_A)
        replaced = LibraryStore(str(tmp_path)).add_or_update(path, "B_C2", ENTRY_B)
        assert replaced is False
        assert _read(path) == HEADER + ENTRY_A + ENTRY_B + ")\n"

    def test_duplicate_leaves_file_untouched(self, tmp_path):
        path = _container(tmp_path / "lib.kicad_sym", ENTRY_A, ENTRY_B)
        before = open(path, "rb").read()
        with pytest.raises(DuplicateComponent):
            LibraryStore(str(tmp_path)).add_or_update(path, "A_C1", '  (symbol "A_C1" (in_bom no))\n')
        assert open(path, "rb").read() == before

    def test_overwrite_replaces_only_that_entry(self, tmp_path):
        path = _container(tmp_path / "lib.kicad_sym", ENTRY_A, ENTRY_B)
        replaced = LibraryStore(str(tmp_path)).add_or_update(
            path, "A_C1", '  (symbol "A_C1" (in_bom no))\n', overwrite=True)
        assert replaced is True
        assert _read(path) == HEADER + '  (symbol "A_C1" (in_bom no))\n' + ENTRY_B + ")\n"

    def test_result_loads_with_kiutils(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        store.add_or_update(store.symbol_lib_path, "A_C1", '  (symbol "A_C1" (in_bom yes) (on_board yes))\n')
        store.add_or_update(store.symbol_lib_path, "B_C2", '  (symbol "B_C2" (in_bom yes) (on_board yes))\n')
        lib = SymbolLib.from_file(store.symbol_lib_path)
        assert [s.entryName for s in lib.symbols] == ["A_C1", "B_C2"]

    def test_concurrent_writers_all_land(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        names = [f"P{i}_C{i}" for i in range(16)]

        def add(name):
            store.add_or_update(store.symbol_lib_path, name, f'  (symbol "{name}" (in_bom yes))\n')

        threads = [threading.Thread(target=add, args=(n,)) for n in names]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(store.symbol_names()) == sorted(names)

    def test_lock_shared_per_path(self, tmp_path):
        a = container_lock(str(tmp_path / "x.kicad_sym"))
        b = container_lock(str(tmp_path / "." / "x.kicad_sym"))
        assert a is b


class TestRemove:
    def test_removes_matching_entries_only(self, tmp_path):
        path = _container(tmp_path / "lib.kicad_sym", ENTRY_A, ENTRY_B, ENTRY_C)
        count = LibraryStore(str(tmp_path)).remove(path, lambda n: n.endswith("_C1"))
        assert count == 1
        assert _read(path) == HEADER + ENTRY_B + ENTRY_C + ")\n"

    def test_no_match_leaves_file_untouched(self, tmp_path):
        path = _container(tmp_path / "lib.kicad_sym", ENTRY_A, ENTRY_B)
        before = open(path, "rb").read()
        assert LibraryStore(str(tmp_path)).remove(path, lambda n: n.endswith("_C999")) == 0
        assert open(path, "rb").read() == before

    def test_missing_container(self, tmp_path):
        store = LibraryStore(str(tmp_path))
        assert store.remove(str(tmp_path / "missing.kicad_sym"), lambda n: True) == 0


class TestPerComponentFiles:
    def test_write_models(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        wrl = store.write_wrl_model("M_C1", "#VRML V2.0 utf8\n")
        step = store.write_step_model("M_C1", b"ISO-10303-21;\n")
        assert _read(wrl) == "#VRML V2.0 utf8\n"
        assert open(step, "rb").read() == b"ISO-10303-21;\n"

    def test_write_footprint(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        footprint = Footprint.create_new(library_id="F_C1", value="F_C1", type="smd")
        path = store.write_footprint("F_C1", footprint)
        assert path == os.path.join(str(tmp_library), "lcscbridge.pretty", "F_C1.kicad_mod")
        assert Footprint.from_file(path).entryName == "F_C1"

    def test_create_directories(self, tmp_path):
        store = LibraryStore(str(tmp_path / "new"))
        store.create_directories()
        assert os.path.isdir(store.footprint_dir)
        assert os.path.isdir(store.model_dir)

    def test_create_directories_over_a_file(self, tmp_path):
        blocker = tmp_path / "lib"
        blocker.write_text("not a directory")
        with pytest.raises(LibraryError):
            LibraryStore(str(blocker)).create_directories()


class TestRemoveComponent:
    def test_removes_every_artifact(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        _container(tmp_library / "lcscbridge.kicad_sym", ENTRY_A, ENTRY_B, ENTRY_C)
        for name in ["A_C1.kicad_mod", "C_C12.kicad_mod"]:
            (tmp_library / "lcscbridge.pretty" / name).write_text("(footprint)")
        for name in ["M_C1.wrl", "M_C1.step", "M_C12.step"]:
            (tmp_library / "lcscbridge.3dshapes" / name).write_text("x")

        report = store.remove_component("C1")
        assert (report.symbols, report.footprints, report.models) == (1, 1, 2)
        assert report.total == 4
        assert report.errors == []
        assert store.symbol_names() == ["B_C2", "C_C12"]
        assert os.listdir(store.footprint_dir) == ["C_C12.kicad_mod"]
        assert os.listdir(store.model_dir) == ["M_C12.step"]

    def test_nothing_to_remove(self, tmp_path):
        report = LibraryStore(str(tmp_path)).remove_component("C404")
        assert report.total == 0
        assert report.errors == []

    def test_broken_container_does_not_block_files(self, tmp_library):
        store = LibraryStore(str(tmp_library))
        (tmp_library / "lcscbridge.kicad_sym").write_text('(kicad_symbol_lib (symbol "A_C1"')
        (tmp_library / "lcscbridge.pretty" / "A_C1.kicad_mod").write_text("(footprint)")

        report = store.remove_component("C1")
        assert report.symbols == 0
        assert report.footprints == 1
        assert len(report.errors) == 1
