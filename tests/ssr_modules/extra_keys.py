def render(page):
    return {"head": [], "body": "<div></div>", "status": 200}
