from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="char-lstm",
    version="0.1.0",
    description="Character-level LSTM language model unrolled over time with native PyTorch",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["char_lstm", "char_lstm.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "torch>=2.0.0",
        "numpy>=1.21.0",
        "tqdm>=4.60.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
