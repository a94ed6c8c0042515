"""
Setup script for backend development environment
"""
import os
import shutil

from download_mediapipe_model import main as download_models


def create_directories():
    """Create necessary directories"""
    directories = [
        'data',
        'logs'
    ]
    for directory in directories:
        os.makedirs(directory, exist_ok=True)
        print(f"✓ Created directory: {directory}")


def create_env_file():
    """Create .env file from example if it doesn't exist"""
    if os.path.exists('.env'):
        print("✓ .env file already exists")
        return

    if os.path.exists('.env.example'):
        shutil.copy('.env.example', '.env')
        print("✓ Created .env file from .env.example")
        print("  Please edit .env with your configuration")
    else:
        print("✗ .env.example not found")


def main():
    """Run all setup steps"""
    print("Setting up Quiz Proctor backend...\n")

    create_directories()
    create_env_file()
    download_models()

    print("\n✓ Setup complete!")
    print("\nNext steps:")
    print("1. Edit .env with your configuration (BACKEND_URL at least)")
    print("2. Run the server: uvicorn quiz_proctor.main:app --reload")
    print("3. Or proctor from a local webcam: python local_proctor.py <username>")


if __name__ == '__main__':
    main()
