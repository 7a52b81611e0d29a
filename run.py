"""
Serve the Taskflow API with uvicorn.

Usage:
    python run.py
    python run.py --reload          # Auto-reload while developing
    python run.py --no-automation   # Do not start the automatic transition scheduler
"""
import argparse
import os
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the Taskflow API server")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument(
        "--no-automation",
        action="store_true",
        help="Disable the periodic automatic transition pass"
    )
    
    args = parser.parse_args()
    
    if args.no_automation:
        # Read by Settings when the app module is imported
        os.environ["AUTOMATION_SCHEDULER_ENABLED"] = "false"
    
    print(f"Starting Taskflow API server on {args.host}:{args.port} (reload={args.reload})")
    
    uvicorn.run(
        "taskflow.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
