raise RuntimeError("module initialization failed")
