# coding:utf-8

from setuptools import setup, find_packages

setup(name='etcd3-autoconf',
      version='0.1.0',
      description='Etcd3 client configuration from flags, DNS SRV and TLS',
      long_description=open('README.md').read(),
      long_description_content_type='text/markdown',
      classifiers=[
          'Development Status :: 4 - Beta',
          'Intended Audience :: Developers',
          'License :: OSI Approved :: Apache Software License',
          'Programming Language :: Python :: 3',
          'Topic :: Software Development :: Libraries',
      ],
      keywords='etcd dns srv tls',
      license='Apache 2',
      packages=find_packages(exclude=['tests', 'tests.*']),
      include_package_data=True,
      zip_safe=True,
      python_requires='>=3.8',
      extras_require={
          'test': [
              'pytest',
              'coverage',
          ],
      },
      install_requires=[
          'cryptography>=39',
          'dnspython>=2.0',
          'grpcio',
          'protobuf>=4.22',
      ])
