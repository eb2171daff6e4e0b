from services.collector.app.reader import fetch_and_parse, parse_html

ARTICLE_HTML = """
<html>
  <head>
    <title>Ignored tab title</title>
    <meta property="og:title" content="Council approves new bridge" />
    <meta name="author" content="Jane Reporter" />
    <meta property="og:description" content="The vote ends a decade of debate." />
    <meta property="og:image" content="https://cdn.example.com/bridge.jpg" />
  </head>
  <body>
    <nav><a href="/">Home</a> <a href="/news">News</a></nav>
    <article>
      <h1>Council approves new bridge</h1>
      <p>{body}</p>
      <p>{body}</p>
    </article>
    <footer>Copyright</footer>
  </body>
</html>
"""


def test_parse_html_extracts_metadata_and_body():
    body = "The city council voted on Tuesday to fund the crossing over the river. " * 40
    parsed = parse_html(ARTICLE_HTML.format(body=body))

    assert parsed.title == "Council approves new bridge"
    assert parsed.byline == "Jane Reporter"
    assert parsed.excerpt == "The vote ends a decade of debate."
    assert parsed.image_url == "https://cdn.example.com/bridge.jpg"
    assert "crossing over the river" in parsed.full_content
    assert parsed.reading_minutes >= 2


def test_parse_html_excerpt_falls_back_to_body_text():
    html = "<html><head><title>Plain</title></head><body><article><p>%s</p></article></body></html>" % (
        "Short body sentence here. " * 30
    )
    parsed = parse_html(html)
    assert parsed.excerpt.startswith("Short body sentence here.")
    assert len(parsed.excerpt) <= 300


async def test_fetch_and_parse_returns_none_on_failure():
    assert await fetch_and_parse("notaurl://nowhere", timeout=1) is None
