from phish_email_analyzer.providers.catalog import CUSTOM_MODEL_ID, load_catalog, parse_catalog


def test_packaged_catalog_lists_three_providers():
    catalog = load_catalog()
    assert set(catalog.provider_names()) == {"openai", "anthropic", "google"}
    assert catalog.default_model("openai") == "gpt-4o-mini"
    assert catalog.default_model("unknown") == "gpt-4o-mini"


def test_tool_calling_flags():
    catalog = load_catalog()
    assert catalog.supports_tool_calling("openai", "gpt-4o")
    assert not catalog.supports_tool_calling("google", "gemini-1.0-pro")
    # Custom models inherit the provider flag.
    assert catalog.supports_tool_calling("anthropic", "claude-custom-preview")
    assert not catalog.supports_tool_calling("mistral", "any")


def test_model_options_include_custom_entry():
    options = load_catalog().model_options("openai")
    assert options[-1].id == CUSTOM_MODEL_ID
    assert options[-1].is_custom
    assert any(item.recommended for item in options)


def test_custom_model_name_validation():
    catalog = load_catalog()
    assert catalog.validate_custom_model("gpt-4o-2024-08-06") == (True, None)
    assert catalog.validate_custom_model("  ")[0] is False
    assert catalog.validate_custom_model("x" * 101)[0] is False
    ok, reason = catalog.validate_custom_model("bad name!")
    assert ok is False
    assert reason


def test_parse_catalog_tolerates_sparse_payloads():
    catalog = parse_catalog({"providers": {"OpenAI": {"models": [{"id": "m1"}, {"name": "no id"}]}}})
    info = catalog.provider("openai")
    assert info.default_model == "m1"
    assert [item.id for item in info.models] == ["m1"]
    assert catalog.custom_model.max_length == 100
