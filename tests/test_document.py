from confusense.document import DEFAULT_CONTENT, StudyDocument


def test_suggestions_newest_first_and_clear():
    doc = StudyDocument("Text.")
    doc.add_suggestion("first", ts=0.0)
    doc.add_suggestion("second", provider="gemini", ts=60.0)
    assert [s.text for s in doc.suggestions] == ["second", "first"]

    out = doc.render()
    assert out.startswith("Text.")
    assert out.index("second") < out.index("first")
    assert out.count("AI (") == 2

    doc.clear_suggestions()
    assert doc.suggestions == []
    assert doc.render() == "Text."


def test_default_and_set_content():
    doc = StudyDocument()
    assert doc.content == DEFAULT_CONTENT
    doc.set_content("New")
    assert doc.render() == "New"
