from mangapost.services.caption import MAX_CAPTION, format_caption, hashtags


def test_hashtags_trim_and_strip_inner_whitespace():
    assert hashtags(["fantasy", " romance "]) == ["#fantasy", "#romance"]
    assert hashtags(["slice of life"]) == ["#sliceoflife"]


def test_hashtags_drop_empty_tokens():
    assert hashtags(["", "  ", "action"]) == ["#action"]


def test_caption_contains_title_description_and_tags_in_order():
    caption = format_caption("Berserk", "Guts swings a big sword.", ["dark", "fantasy", "action"])

    assert "Berserk" in caption
    assert "Guts swings a big sword." in caption
    assert "#dark #fantasy #action" in caption
    assert caption.index("Berserk") < caption.index("Guts") < caption.index("#dark")


def test_caption_template():
    caption = format_caption("Title", "Desc", ["fantasy", " romance "])

    assert caption == (
        "<b>🔥 NEW UPLOAD: Title</b>\n\n"
        "📝 <b>Summary:</b>\n<i>Desc</i>\n\n"
        "🏷 <b>Tags:</b>\n#fantasy #romance\n\n"
        "🚀 <i>Click below to read the full manga!</i>"
    )


def test_adult_marker_only_when_flagged():
    assert "18+ ONLY" in format_caption("T", "D", ["x"], is_adult=True)
    assert "18+ ONLY" not in format_caption("T", "D", ["x"], is_adult=False)


def test_tags_block_omitted_without_tags():
    assert "Tags:" not in format_caption("T", "D", [])


def test_html_is_escaped():
    caption = format_caption("Tom & Jerry <3", "a < b", [])

    assert "Tom &amp; Jerry &lt;3" in caption
    assert "a &lt; b" in caption


def test_long_description_is_clipped():
    caption = format_caption("T", "x" * 5000, ["tag"])

    assert len(caption) <= MAX_CAPTION
    assert "…</i>" in caption
    assert "#tag" in caption


def test_long_title_is_clipped_to_limit():
    caption = format_caption("T" * 2000, "Desc", ["tag"])

    assert len(caption) <= MAX_CAPTION
    assert "…</b>" in caption
