# Records each initialization in the file named by SSR_TEST_INIT_LOG.
import os
import time

with open(os.environ["SSR_TEST_INIT_LOG"], "a", encoding="utf-8") as _log:
    _log.write("init\n")
time.sleep(0.05)


def render(page):
    return {"head": [], "body": ""}
