from setuptools import setup, find_packages

package_name = 'roomba_gateway'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.10',
    install_requires=[
        'setuptools',
        'fastapi>=0.104.0',
        'uvicorn>=0.24.0',
        'websockets>=13.0',
        'pyserial>=3.5',
        'opencv-python>=4.8.0',
        'numpy>=1.24.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.21.0',
            'httpx>=0.25.0',
        ],
    },
    zip_safe=True,
    maintainer='Hasan Çoban',
    maintainer_email='hasancoban@std.iyte.edu.tr',
    description='Network gateway for a serial-attached Roomba with camera',
    license='MIT',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'roomba-gateway = roomba_gateway.main:main',
            'roomba-remote = roomba_remote.main:main',
        ],
    },
)
