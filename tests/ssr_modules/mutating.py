def render(page):
    props = page["props"]
    props.setdefault("items", []).append("x")
    props["content"] = "mutated"
    return {
        "head": ["<title>a</title>", "<title>a</title>"],
        "body": f'<div id="ssr">{len(props["items"])}</div>',
    }
