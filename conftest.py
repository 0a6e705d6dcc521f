import os

# Keep test runs from writing api.log into the working tree
os.environ.setdefault("LOG_FILE", "")
