"""
Setup script for studentmath package.
"""

from setuptools import setup, find_packages

setup(
    name="studentmath",
    version="0.1.0",
    packages=find_packages(include=["studentmath", "studentmath.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.5.0",

        # Web server
        "fastapi>=0.70.0",
        "uvicorn>=0.15.0",
        "pydantic>=1.8.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "scipy>=1.7.0",
            "scikit-learn>=1.0.0",
            "httpx>=0.23.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'studentmath=studentmath.__main__:main',
        ],
    },
    description="Correlation, regression and persona clustering for student cognitive-skill data",
    keywords="students, correlation, regression, clustering, analytics",
    python_requires=">=3.8",
)
