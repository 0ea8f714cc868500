from transconnect_core.languages import COMMON_LANGUAGE_PAIRS, LANGUAGE_CODE, is_supported, transcription_hint


def test_transcription_hint_accepts_codes_and_names():
    assert transcription_hint("fr") == "fr"
    assert transcription_hint("Spanish") == "es"
    assert transcription_hint("german") == "de"


def test_transcription_hint_leaves_unknown_values_to_detection():
    assert transcription_hint(None) is None
    assert transcription_hint("auto") is None
    assert transcription_hint("default") is None


def test_common_pairs_use_supported_languages():
    for source, target in COMMON_LANGUAGE_PAIRS:
        assert is_supported(LANGUAGE_CODE[source])
        assert is_supported(LANGUAGE_CODE[target])
    assert not is_supported("xx")
