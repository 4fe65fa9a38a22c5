from hazid_core.config import DEFAULT_COLUMN_WIDTHS, AppConfig, config_from_mapping, load_config


def test_missing_file_gives_defaults(tmp_path) -> None:
    assert load_config(str(tmp_path / "nope.yaml")) == AppConfig()


def test_values_are_read(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "storage_key: plant_a\n"
        "autosave: false\n"
        "export:\n"
        "  header_color: '112233'\n"
        "  column_widths: [10, 20]\n"
        "  file_name: plant_a.xlsx\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.storage_key == "plant_a"
    assert config.autosave is False
    assert config.export.header_color == "#112233"
    assert config.export.border_color == "#024F75"
    assert config.export.column_widths == (10, 20)
    assert config.export.file_name == "plant_a.xlsx"


def test_broken_yaml_falls_back(tmp_path, capsys) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("export: [unclosed", encoding="utf-8")

    assert load_config(str(path)) == AppConfig()
    assert "Unable to read" in capsys.readouterr().err


def test_invalid_values_keep_defaults() -> None:
    config = config_from_mapping({"autosave": "yes", "storage_key": "  ", "export": {"column_widths": [10, -1]}})

    assert config.autosave is True
    assert config.storage_key == "hazid_v1"
    assert config.export.column_widths == DEFAULT_COLUMN_WIDTHS
