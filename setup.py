import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="xmr-bridge",
    version="0.1.0",
    description="Local REST bridge and supervisor for monero-wallet-rpc",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    package_data={"walletrpc": ["resources/*"]},
    install_requires=[
        "fastapi>=0.100",
        "pydantic>=2.0",
        "requests>=2.28",
        "uvicorn>=0.23",
    ],
    extras_require={
        "test": [
            "httpx>=0.24",
            "pytest>=7.0",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
