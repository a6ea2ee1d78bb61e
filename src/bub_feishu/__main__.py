from bub_feishu.cli import app

if __name__ == "__main__":
    app()
