"""
Elastic Beanstalk Entry Point
"""
import logging
import os
import sys

# Add the current directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from backend.app import create_app, start_scheduler

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

application = create_app()
start_scheduler(application)

# For local testing
if __name__ == "__main__":
    application.run(debug=True, use_reloader=False)
