from services.analyzer.app.normalize import (
    fallback_summary,
    normalize_outline,
    normalize_output,
    normalize_paragraph,
    remove_inline_emphasis,
    split_topic_lines,
)

ARTICLE = (
    "The council met on Monday. It approved the budget. Critics objected loudly. "
    "A vote on taxes follows next week. Officials expect a close result. The mayor declined to comment."
)


def test_remove_inline_emphasis():
    assert remove_inline_emphasis("A **bold** and _soft_ claim") == "A bold and soft claim"


def test_outline_bullets_are_normalized_and_deduped():
    raw = "1. first point\n- second point\n* Second point\n• third point\n" + "\n".join(f"- extra {i}" for i in range(10))
    out = normalize_outline(raw)
    lines = out.split("\n")
    assert lines[:3] == ["• First point", "• Second point", "• Third point"]
    assert len(lines) == 8
    assert all(line.startswith("• ") for line in lines)


def test_paragraph_mode_flattens_lists():
    assert normalize_output("- one thing\n- **another** thing", "tldr") == "one thing another thing."
    assert normalize_output("Plain *answer* here.", "detailed") == "Plain answer here."
    assert normalize_output("   ", "tldr") == ""


def test_normalize_paragraph_adds_terminal_punctuation():
    assert normalize_paragraph("no stop") == "no stop."
    assert normalize_paragraph("spaced , words !") == "spaced, words!"


def test_fallback_tldr_keeps_three_sentences():
    assert fallback_summary(ARTICLE, "tldr") == "The council met on Monday. It approved the budget. Critics objected loudly."


def test_fallback_detailed_picks_spread_sentences():
    out = fallback_summary(ARTICLE, "detailed")
    assert out == (
        "The council met on Monday. It approved the budget. A vote on taxes follows next week. "
        "Officials expect a close result. The mayor declined to comment."
    )


def test_fallback_outline_and_empty_input():
    out = fallback_summary("<p>One.</p> Two! Three?", "outline")
    assert out == "• One.\n• Two!\n• Three?"
    assert fallback_summary("   ", "tldr") == ""
    assert fallback_summary("Single line without stop", "detailed") == "Single line without stop."


def test_split_topic_lines():
    text = "1. Reflect on change\n\n2) What surprised you?\n- **Bold** idea\nfour\nfive\nsix\nseven"
    assert split_topic_lines(text, 6) == ["Reflect on change", "What surprised you?", "Bold idea", "four", "five", "six"]


def test_fallback_decodes_html_entities():
    body = "<p>AT&amp;T agreed to sell the unit.</p><p>Analysts said the deal &lt;was&gt; fair.</p>"
    assert fallback_summary(body, "tldr") == "AT&T agreed to sell the unit. Analysts said the deal <was> fair."
