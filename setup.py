from setuptools import setup, find_packages

setup(
    name="incident_status_page",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "flask>=2.0.0",
        "requests>=2.25.0",
        "apscheduler>=3.8.0,<4",
        "python-dotenv>=0.19.0",
        "gunicorn>=20.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
)
