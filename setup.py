from setuptools import setup, find_packages

setup(
    name="chip8_emulator",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.20.0",
        "matplotlib>=3.4.0",
        "PyYAML>=5.4",
        "tqdm>=4.62.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "chip8-emulator=chip8_emulator.main:main",
        ],
    },
    description="A CHIP-8 virtual machine interpreter with state recording and visualization tools",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Topic :: System :: Emulators",
    ],
    python_requires=">=3.9",
)
