"""Setup script for the recurrence engine package."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, separating test-only entries
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
dev_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "pytest" in line or "testing" in line.lower():
            dev_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="recurrence-engine",
    version="1.0.0",
    description="Recurrence rule engine for calendar events: encode, expand, clamp and describe RRULEs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Recurrence Engine Team",
    # Package configuration
    packages=find_packages(include=["recurrence_engine", "recurrence_engine.*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "dev": dev_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
        "test": dev_requirements,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Topic :: Software Development :: Libraries",
    ],
    keywords="calendar rrule recurrence icalendar scheduling",
    entry_points={
        "console_scripts": [
            "recurrence-engine=recurrence_engine.__main__:main",
        ],
    },
    package_data={
        "recurrence_engine": ["config.yaml.example"],
    },
    zip_safe=False,
)
