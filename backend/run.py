import uvicorn
import argparse
import logging
import os


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Secure Pass API Runner")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host interface to bind")
    parser.add_argument("--port", type=int, default=8334, help="Port to run the backend on")
    parser.add_argument("--dir", type=str, default="./workspace", help="Workspace directory for data")
    parser.add_argument("--log-level", type=str, default="info", help="Logging level (debug, info, warning, error)")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Set environment var for Storage Engine to pick up; must precede the app import
    os.environ["SECUREPASS_WORKSPACE"] = args.dir

    from securepass.main import app

    print(f"🔐 Starting Secure Pass on http://{args.host}:{args.port}")
    print(f"📂 Workspace: {os.path.abspath(args.dir)}")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=False,
        log_level=args.log_level.lower(),
    )
