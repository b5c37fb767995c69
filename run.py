import os
import sys
import streamlit.web.cli as stcli


def resolve_path(path):
    """Absolute path of a file shipped next to this launcher."""
    basedir = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(basedir, path)


def main():
    # must stay "false" so the browser opens on launch
    os.environ["STREAMLIT_SERVER_HEADLESS"] = "false"
    os.environ["STREAMLIT_BROWSER_GATHER_USAGE_STATS"] = "false"

    app_path = resolve_path("app.py")

    sys.argv = [
        "streamlit",
        "run",
        app_path,
        "--global.developmentMode=false",
    ]

    sys.exit(stcli.main())


if __name__ == "__main__":
    main()
