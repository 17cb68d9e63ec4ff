# Same output as exports_props.py, declared as a top-level render function.


def render(page):
    return {
        "head": [
            "<title>New title</title>",
            '<meta name="description" content="Head stuff" />',
        ],
        "body": f'<div id="ssr">{page["props"].get("content") or ""}</div>',
    }
