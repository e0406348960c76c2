import server


EXPECTED_SERVER_EXPORTS = (
    "APP_VERSION",
    "build_directory_from_env",
    "create_app",
    "load_env",
    "main",
    "setup_logging",
    "validate_env",
)


def test_server_export_surface() -> None:
    missing = [name for name in EXPECTED_SERVER_EXPORTS if not hasattr(server, name)]
    assert missing == []
