"""Database, DNS, memory and kubernetes-version prechecks that report a cluster condition."""