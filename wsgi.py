import os

# production unless the process says otherwise
os.environ.setdefault("APP_ENV", "production")

from alianah import create_app  # noqa: E402

app = create_app()
