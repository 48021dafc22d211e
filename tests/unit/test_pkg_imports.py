def test_import_package_and_version_smoke():
    import sform

    assert isinstance(sform.__version__, str)
    for name in sform.__all__:
        assert hasattr(sform, name), name


def test_main_module_exposes_entry_point():
    from sform.__main__ import main

    assert callable(main)
