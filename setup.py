from setuptools import setup, find_packages

setup(
    name="tcplatency",
    version="0.1.0",
    description="One-way TCP latency from two packet captures (RFC 1242)",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "click>=8.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "scapy>=2.5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tcplatency=latency_cli.main:cli",
        ],
    },
    python_requires=">=3.8",
)
