"""Setup script for alarmcal, the alarm event model and iCalendar codec."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

requirements = [
    "icalendar>=6.0.0",
    "python-dateutil>=2.8.2",
    "pydantic>=2.0.0",
    "pydantic-settings>=2.0.0",
    "pytz>=2023.3",
    "PyYAML>=6.0",
]

test_requirements = [
    "pytest>=7.0.0",
]

setup(
    name="alarmcal",
    version="1.0.0",
    description="Alarm event model with recurrence, reminders and deferrals, stored as iCalendar",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="AlarmCal Team",
    author_email="support@alarmcal.local",
    # Package configuration
    packages=find_packages(include=["alarmcal", "alarmcal.*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
            "types-python-dateutil",
            "types-pytz",
            "types-PyYAML",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
    ],
    keywords="alarm reminder calendar ics icalendar recurrence kalarm",
    # Entry points
    entry_points={
        "console_scripts": [
            "alarmcal=alarmcal.__main__:main",
        ],
    },
    zip_safe=False,
    platforms=["linux", "macos"],
)
