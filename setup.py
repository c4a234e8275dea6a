from setuptools import setup, find_packages

setup(
    name="face2name-identity-store",
    version="1.0.0",
    description="Local identity storage for Face2Name: names in SQLite, face photos on disk",
    packages=find_packages(include=["face2name", "face2name.*"]),
    python_requires=">=3.11",
    install_requires=[
        "numpy>=1.26",
        "opencv-python>=4.8",
        "pyyaml>=6.0",
        "SQLAlchemy>=2.0",
        "structlog>=24.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "face2name=face2name.cli:main",
        ]
    },
)
