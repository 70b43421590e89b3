from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="directory-identity-hub",
    version="0.1.0",
    author="Directory Identity Hub Developers",
    description="A set of Python modules to read and manage users and groups in Active Directory and Okta",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "Topic :: System :: Systems Administration :: Authentication/Directory :: LDAP",
    ],
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.25.0",
        "python-dotenv>=0.15.0",
        "ldap3>=2.9.0",
        "keyring>=23.0.0",
        "dnspython>=2.0.0",
    ],
    extras_require={
        "okta": [
            "requests>=2.25.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
    },
)
