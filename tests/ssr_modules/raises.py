class RenderBoom(RuntimeError):
    pass


def render(page):
    raise RenderBoom(f"cannot render {page['component']}")
